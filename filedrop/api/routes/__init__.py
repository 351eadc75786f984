"""
Route modules, one router per resource.
"""
