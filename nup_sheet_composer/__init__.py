"""
Compose PDF pages onto N-up print sheets with ink-saving filters.
"""
