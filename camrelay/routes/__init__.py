"""Blueprints HTTP du relais"""
