"""
Demo data generation
"""
