"""Report pipeline for sales orders.

Pure, in-memory stages composed strictly in order:
order filter -> cost matcher -> financial aggregator.
"""
