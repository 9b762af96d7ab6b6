"""Catalog of interview topics for backend C++ interviews."""
from __future__ import annotations

from typing import Dict, Iterable, List, Literal

from pydantic import BaseModel

TopicCategory = Literal["core", "infra", "architecture"]


class Topic(BaseModel):
    id: str
    name: str
    description: str
    category: TopicCategory


AVAILABLE_TOPICS: List[Topic] = [
    Topic(
        id="cpp_basics_oop",
        name="C++ fundamentals & OOP",
        description="pointers vs references, const/static semantics, vptr/vtable layout, polymorphism, "
        "diamond inheritance, construction and destruction order",
        category="core",
    ),
    Topic(
        id="cpp_memory",
        name="Memory management & RAII",
        description="stack vs heap, new/delete internals, shared/unique/weak pointers and their thread safety, "
        "leak detection, move semantics and perfect forwarding",
        category="core",
    ),
    Topic(
        id="cpp_stl",
        name="STL internals",
        description="vector growth, map/unordered_map as red-black tree and hash table, iterator invalidation, "
        "allocators, algorithm complexity",
        category="core",
    ),
    Topic(
        id="cpp_modern",
        name="C++11 to C++23",
        description="lambdas and closures, rvalue references, auto/decltype, constexpr, variadic templates, "
        "concepts, modules, ranges",
        category="core",
    ),
    Topic(
        id="cpp_template",
        name="Templates & generic programming",
        description="full and partial specialization, SFINAE, CRTP, type traits, compile-time computation",
        category="core",
    ),
    Topic(
        id="algo_structs",
        name="Data structures & algorithms",
        description="B/B+ trees, skip lists, LRU/LFU, heap/quick/merge sort, Dijkstra/DFS/BFS, KMP and tries",
        category="core",
    ),
    Topic(
        id="os_kernel",
        name="Operating systems",
        description="processes vs threads vs coroutines, scheduling, virtual memory and page faults, "
        "orphan and zombie processes, deadlock conditions and prevention",
        category="infra",
    ),
    Topic(
        id="linux_sys",
        name="Linux systems programming",
        description="IPC (pipes, shared memory, message queues, signals), file descriptors and VFS, fork/exec, "
        "mmap, everyday tooling (top, ps, netstat, awk)",
        category="infra",
    ),
    Topic(
        id="network_protocol",
        name="TCP/IP stack",
        description="handshake and teardown state machine, sliding window and congestion control, "
        "TIME_WAIT/CLOSE_WAIT, message framing, reliable UDP, QUIC",
        category="infra",
    ),
    Topic(
        id="network_io",
        name="High-performance network IO",
        description="blocking vs non-blocking vs async IO, select/poll/epoll (LT/ET), Reactor and Proactor, "
        "zero-copy (sendfile/splice)",
        category="infra",
    ),
    Topic(
        id="concurrency",
        name="Multithreading & concurrency",
        description="mutexes and condition variables, spinlocks, rwlocks, CAS and atomics, memory order and "
        "fences, false sharing, thread pools",
        category="infra",
    ),
    Topic(
        id="compile_debug",
        name="Build, link & debug",
        description="ELF format, static vs dynamic linking, symbol tables, GDB, perf, Valgrind, CMake/Makefile",
        category="infra",
    ),
    Topic(
        id="db_mysql",
        name="MySQL in depth",
        description="InnoDB architecture, clustered and secondary indexes, ACID, isolation levels and MVCC, "
        "row and gap locks, slow query tuning, EXPLAIN",
        category="architecture",
    ),
    Topic(
        id="db_redis",
        name="Redis internals",
        description="SDS/dict/ziplist/skiplist, RDB/AOF persistence, cache avalanche/penetration/breakdown, "
        "sentinel and cluster, distributed locks",
        category="architecture",
    ),
    Topic(
        id="distributed_theory",
        name="Distributed systems theory",
        description="CAP, BASE, 2PC/3PC/Paxos/Raft, gossip, consistent hashing, Snowflake ids",
        category="architecture",
    ),
    Topic(
        id="middleware_mq",
        name="Message queues & RPC",
        description="Kafka throughput and ISR, RabbitMQ, message loss and duplicate consumption, load levelling, "
        "gRPC/Protobuf, service discovery",
        category="architecture",
    ),
    Topic(
        id="system_design",
        name="System design & microservices",
        description="high-concurrency architecture, load balancing, circuit breaking and rate limiting, "
        "multi-region active-active, flash sales, feeds, URL shorteners",
        category="architecture",
    ),
    Topic(
        id="cloud_native",
        name="Cloud native & engineering practice",
        description="Docker internals (namespaces, cgroups, UnionFS), Kubernetes basics, CI/CD, unit testing, "
        "code style",
        category="architecture",
    ),
]

_BY_ID: Dict[str, Topic] = {topic.id: topic for topic in AVAILABLE_TOPICS}


def get_topic(topic_id: str) -> Topic | None:
    return _BY_ID.get(topic_id)


def topics_in_category(category: TopicCategory) -> List[str]:
    """Return the ids of every catalog topic in ``category``."""

    return [topic.id for topic in AVAILABLE_TOPICS if topic.category == category]


def describe_topics(topic_ids: Iterable[str]) -> List[str]:
    """Render topic ids as prompt lines; unknown ids are passed through verbatim."""

    lines: List[str] = []
    for topic_id in topic_ids:
        topic = _BY_ID.get(topic_id)
        if topic is None:
            lines.append(f"- {topic_id}")
        else:
            lines.append(f"- {topic.name} ({topic.id}): {topic.description}")
    return lines


__all__ = ["Topic", "TopicCategory", "AVAILABLE_TOPICS", "get_topic", "topics_in_category", "describe_topics"]
