"""SENTRY - hypothesize-then-prove verification of smart contract access control."""

__version__ = "0.1.0"
