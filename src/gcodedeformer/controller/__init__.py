"""
The CONTROLLER layer runs long operations (G-code export) off the GUI thread
and reports back through Qt Signals.
"""
