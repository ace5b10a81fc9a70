"""Core configuration, logging and exceptions for planwave."""
