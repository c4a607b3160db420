"""ViewModel package for UI-facing state.

Call context:
    ``cabin.app`` modules import the auth and settings view-models and push
    state transitions into them.

Dependencies:
    Modules in this package depend on domain types only. I/O adapters and
    use-case orchestration remain outside.
"""
