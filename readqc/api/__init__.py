"""HTTP ingress/query layer and job pipeline."""
