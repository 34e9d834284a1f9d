"""Unit tests for TransGate.

This package contains test modules for all components of the translation gateway.
Tests use pytest with asyncio support. HTTP backends are exercised against local aiohttp test servers
and Redis is replaced by mocks.
"""
