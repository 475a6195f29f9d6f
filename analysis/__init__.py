"""Rate kernels and alarm bookkeeping used alongside the signal core."""
