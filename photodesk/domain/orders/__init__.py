"""Orders domain - editing order lifecycle, kanban projections and audit trail"""
