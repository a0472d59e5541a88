"""Constrained flow graphs with greedy and carousel greedy path search."""