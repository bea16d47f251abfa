"""
G-code text handling: the interpreter that builds the rest-pose toolpath and
the re-synthesizer that writes the deformed program back out.
"""
from gcodedeformer.gcode.interpreter import GCodeInterpreter, MotionState, Layer, Toolpath
from gcodedeformer.gcode.resynthesizer import GCodeResynthesizer, ResynthesisStats

__all__ = ["GCodeInterpreter", "MotionState", "Layer", "Toolpath", "GCodeResynthesizer", "ResynthesisStats"]
