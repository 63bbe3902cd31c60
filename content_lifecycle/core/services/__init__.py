# content-lifecycle: core services
# Orchestrate domain logic with injected ports
