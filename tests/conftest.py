# Copyright (c) 2026 Heureum AI. All rights reserved.

"""Shared test configuration."""
import os

# Ensure test environment
os.environ.setdefault("GRAYLOG_URL", "https://graylog.test")
os.environ.setdefault("GRAYLOG_TOKEN", "test-token")
os.environ.setdefault("GRAYLOG_TLS_SKIP_VERIFY", "False")
