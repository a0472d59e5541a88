# overlayroute

Building blocks for routing traffic through an overlay network of relay nodes.

- `overlayroute.packet` holds the multi-hop packet header. `Packet` packs to and
  unpacks from its big-endian wire form. It carries its hop list as 32-bit
  IPv4 addresses and records how far along the path the packet has travelled
  (`next_hop`, `previous_hop`, `increment_hop_counts`,
  `decrement_hop_counts`). `new_packet` builds a single-request packet and
  `new_merged_packet` builds one that carries several requests in one body.
  `get_request_positions` and `calc_relative_offsets` work with the body
  layout. `ip_to_uint32` and `uint32_to_ip` convert addresses.
- `overlayroute.network` defines the data types. `Network` is a square latency
  matrix, with `-1` meaning no link. `Flow`, `Path` and `PathWithIP` are the
  other types.
- `overlayroute.kshortest` has `dijkstra`, which returns every equal-cost
  shortest path from a source. It also has `k_shortest`, Yen's k shortest
  loopless paths. There, paths longer than `hop_threshold` hops pay `theta`
  extra latency for each hop beyond the threshold.
- `overlayroute.outliers` has `detect_outliers_adaptive`, a gap-clustering
  detector for one-dimensional measurements such as probe delays. It returns
  `Outlier` records tagged `OutlierType.SMALL` or `OutlierType.LARGE`.
- `overlayroute.carousel` covers flow path search. It has a directed graph
  with per-edge capacity, latency, flow and usage count (`graph.Graph`). It
  has a depth-first `pathfinder.PathFinder` bounded by capacity, latency and
  edge-usage limits. `greedy.greedy_mfpc` collects paths greedily and
  `search.carousel_greedy` runs the carousel greedy improvement search.
- `overlayroute.bpr` balances load across servers. `core.run_bpr_core` is a
  drift-plus-penalty request balancer. `client.BprClient` is a load-generating
  HTTP client built around it.

The package needs nothing beyond the Python 3.10+ standard library.

## Installing

```
pip install .
pip install ".[test]"   # with pytest, to run the test suite
```

## Packet headers

```python
from overlayroute.packet import Packet, new_packet

packet = new_packet(["10.0.0.1", "10.0.0.2", "10.0.0.3"], 7)
wire = packet.pack()
received = Packet.unpack(wire)
print(received.next_hop())   # ('10.0.0.2', False)
```

The header length is always padded to a multiple of four bytes. Each call to
`pack` sets `header_len` and adds it to the packet's `length` field. Invalid
headers raise `ValueError`. This happens when the counts do not match, a field
is out of range, the data is truncated, or the hop count runs past the hop
list.

## Shortest paths

```python
from overlayroute.network import Flow, Network
from overlayroute.kshortest import k_shortest

net = Network(links=[
    [-1, 1, 4, -1],
    [-1, -1, 1, 5],
    [-1, -1, -1, 1],
    [-1, -1, -1, -1],
])
for path in k_shortest(net, Flow(0, 3), k=2, hop_threshold=3, theta=2):
    print(path.nodes, path.latency)
```

`k_shortest` leaves the network it is given unchanged.

## Greedy flow search

```python
from overlayroute.carousel.graph import Graph
from overlayroute.carousel.greedy import greedy_mfpc, total_flow
from overlayroute.carousel.search import carousel_greedy

graph = Graph(4, 0, 3)
graph.add_edge(0, 1, 10.0, 1.0)
graph.add_edge(0, 2, 8.0, 2.0)
graph.add_edge(1, 3, 6.0, 2.0)
graph.add_edge(2, 3, 7.0, 1.0)

greedy = greedy_mfpc(graph, 0.8, 20.0, 2)
improved = carousel_greedy(graph, 0.8, 20.0, 2, 2, 2)
print(total_flow(greedy), total_flow(improved))
```

Neither search modifies the graph it is given. Progress messages go to
standard output and can be turned off with
`overlayroute.carousel.log.set_enabled(False)`.

## Command-line tools

### overlayroute-carousel

This command runs the greedy search and the carousel greedy search. It reads
the graph from a JSON file given with `--graph`, or uses a built-in
eight-node sample graph when no file is given. It prints both results and
the improvement in total flow.

```
overlayroute-carousel --help
overlayroute-carousel --graph network.json --thetaA 0.8 --thetaL 20 --alpha 2 --beta 2 --summary
```

The options are:

- `--thetaA`, `--thetaL` and `--maxEdgeUsage` set the path limits.
- `--alpha` and `--beta` set the carousel parameters.
- `--greedy` runs only the greedy search, and `--carousel` only the carousel
  search.
- `--log` turns on progress messages.

The carousel paths are saved to `<paths-dir>/<graph name>_paths.json`, with
`--paths-dir` defaulting to `paths_results`. Results for different parameters
accumulate in that file. Turn saving off with `--no-save-paths`. The
`--summary` option appends a CSV row to `--summary-file`, which defaults to
`results_summary.csv`.

A graph file has this shape:

```json
{
  "nodes": 4,
  "source": 0,
  "sink": 3,
  "edges": [
    {"from": 0, "to": 1, "capacity": 10.0, "latency": 1.0},
    {"from": 1, "to": 3, "capacity": 6.0, "latency": 2.0}
  ]
}
```

### overlayroute-bpr

This command drives a built-in list of five worker servers with a rising
request rate.

Every second it does the following:

- It polls each server's `GET /metrics`. The response is a JSON object with
  `ip`, `num_of_cores`, `cpu_usage` and `requests_handled`.
- It balances the current request rate with BPR.
- It spreads `GET /work?size=500000` requests over the second.
- It records a snapshot whenever a server's CPU usage reaches one of the
  given thresholds.

The arguments are given in this order:

1. the initial rate
2. the rate increment
3. the maximum rate
4. the comma-separated CPU thresholds
5. the run duration
6. the rate-increase interval

Two optional arguments follow: the redistribution proportion, which defaults
to 0.5, and the initial queue backlogs. Durations are written like `30m`,
`1h30m` or `250ms`.

```
overlayroute-bpr 10 5 100 "60,70,80" 30m 1m 0.2 "10,15,20,0,20"
```

At the end, if any threshold was reached, the snapshots are written to
`bpr_stats_<timestamp>.csv`. The client reports its progress through the
standard `logging` module under `overlayroute.bpr`. Configure logging to see
it.

## What the package does not do

The package computes paths but does not keep a current route set for a node.
It also does not choose among the computed paths for each packet. Path
weighting and per-packet selection are left to the caller. The package has
no relay server and no probing or reporting agent. Packets are only encoded
and decoded here, never sent. The only network traffic is the HTTP load
generated by `overlayroute-bpr`.

## Tests

```
pytest
```