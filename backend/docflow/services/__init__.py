"""Service modules - Business logic layer"""
