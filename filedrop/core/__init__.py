"""
Core logic for the file dashboard.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
or any infrastructure concerns, so sessions, key derivation and media
classification can be tested in isolation.
"""
