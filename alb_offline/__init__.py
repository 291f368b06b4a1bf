"""
alb-offline

Emulates an AWS Application Load Balancer in front of Lambda functions.
"""

__version__ = "1.0.0"
