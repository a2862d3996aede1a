__project__ = "FlowState"
__version__ = "0.1.0"
