"""
Execution runtime: expression evaluation, control flow and configuration.
"""
