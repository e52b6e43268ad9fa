"""
Shared Layer - Cross-Cutting Concerns
Error contract, structured logging, HTTP middlewares and health routes.
"""
