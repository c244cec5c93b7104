"""Exception hierarchy for the flowcore runtime.

Node-level errors (everything except WorkflowConfigurationError and
WorkflowLoadError) are caught by the engine at the dispatch boundary and
converted into failed node results. They never escape a workflow run.
"""


class FlowcoreError(Exception):
    """Base class for all flowcore errors."""

    pass


class WorkflowConfigurationError(FlowcoreError):
    """Workflow cannot be executed at all (raised before any node runs)."""

    pass


class WorkflowLoadError(FlowcoreError):
    """Workflow definition file could not be read or parsed."""

    pass


class UnsupportedNodeTypeError(FlowcoreError):
    """No executor is registered for a node's type tag."""

    def __init__(self, node_type: str):
        self.node_type = node_type
        super().__init__(f"Unsupported node type: {node_type}")


class NodeConfigurationError(FlowcoreError):
    """A node is missing configuration its executor requires."""

    pass


class ExpressionError(FlowcoreError):
    """Restricted expression failed to parse or evaluate."""

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f'Error evaluating expression "{expression}": {reason}')


class ConditionError(FlowcoreError):
    """Conditional node could not evaluate its condition."""

    pass


class FunctionNotFoundError(FlowcoreError):
    """Function node references a name missing from the function registry."""

    def __init__(self, function_name: str):
        self.function_name = function_name
        super().__init__(f'Function "{function_name}" not found in registry')


class FunctionExecutionError(FlowcoreError):
    """A registered function raised while running."""

    pass
