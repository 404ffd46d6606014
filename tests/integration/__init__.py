# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Integration tests for rubyprint components.

This package contains end-to-end tests that drive the AnalysisEngine over a
small Ruby project on disk.
"""
