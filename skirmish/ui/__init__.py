"""
Console views and narrator menus.
"""
