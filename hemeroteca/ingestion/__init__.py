"""
Hemeroteca Ingestion Module
===========================

Feed entry enumeration and article content extraction.

This module handles:
- Feed parsing and opt-in filtering
- Article body selection and markup removal
"""
