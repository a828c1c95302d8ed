"""
Configuration loading and validation for conversion defaults.

Provides strongly typed settings objects read from environment variables
(and a local .env file) with upfront validation.
"""
