"""
Release pipeline components: fleet health, smoke tests, traffic switching,
retirement, and the deployment orchestrator that drives them.
"""
