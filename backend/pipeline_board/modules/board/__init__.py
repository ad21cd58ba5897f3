"""
Board module.

Views decide how opportunities are bucketed into columns; a drag between
columns is translated into a field mutation that depends on the view kind:
quarterly -> closeDate, stage -> stage (+ defaults), forecast -> forecastCategory,
custom -> columnId. Closed-lost and customer-value views are read-only.
"""
