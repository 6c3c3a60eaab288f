"""Configuration package: provider constants and the brand registry YAML"""
