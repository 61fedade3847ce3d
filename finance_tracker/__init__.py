"""Family finance tracker web application."""
