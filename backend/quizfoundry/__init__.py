# backend/quizfoundry/__init__.py
"""QuizFoundry: an API for generating, taking and analysing AI-assisted quizzes."""

__version__ = "0.1.0"
