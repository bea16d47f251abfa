"""
The VIEW layer contains the Qt widgets and the PyVista scene.
It reads from the EditSession and never deforms anything itself.
"""
