"""Classic algorithm benchmarks: Fibonacci and the Sieve of Eratosthenes."""

from __future__ import annotations


def fib(n: int) -> int:
    """Compute the n-th Fibonacci number iteratively."""
    a = 0
    b = 1
    for _ in range(n):
        a, b = b, a + b
    return a


def sieve(n: int) -> int:
    """Count the primes up to n."""
    is_prime = [True] * (n + 1)
    is_prime[0] = is_prime[1] = False
    i = 2
    while i * i <= n:
        if is_prime[i]:
            is_prime[i * i :: i] = [False] * len(range(i * i, n + 1, i))
        i += 1
    return sum(is_prime)


def register(bench) -> None:
    with bench.group("algorithms"):
        bench.benchmark("fib-30", lambda: fib(30), comment="iterative")
        bench.benchmark(
            "sieve-10k",
            lambda: sieve(10000),
            options={"confirmation": {"sample_count": 3, "variance": 0.02}},
        )
