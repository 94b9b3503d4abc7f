"""REST API over the analyses (jobs) table of the Discovery Environment database."""

__version__ = "0.1.0"
