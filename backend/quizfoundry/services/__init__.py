# backend/quizfoundry/services/__init__.py
"""
Service layer. Every function takes the store as its first argument.
"""
