"""Tests for the document workflow service"""
