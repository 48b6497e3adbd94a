"""Resource lifecycle module.

Orders, creates and tears down the remote resources of a knowledge base stack.

Classes:
    DependencyGraph: Explicit "must exist before" DAG over resource nodes
    RemoteResourceClient: Idempotent create/get/delete against the control planes
    PollLoop: Deadline-bounded retry with exponential backoff
    DeletionOrchestrator: Finalizer state machine for asynchronous deletions
    StackProvisioner: Runs creation and teardown over the graph
    AuditStorage: Teardown audit log storage
"""
