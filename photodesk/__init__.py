"""Photodesk - order lifecycle API for photography businesses"""
