from numba import njit

# weighted quick union-find
class WeightedQuickUnionUF:
    """
    A class for the Weighted Quick-Union-Find data structure
    with path compression.
    """

    def __init__(self, n):
        """
        Initializes an empty union-find data structure with 'n' elements
        indexed 0 through n-1. Each element is initially in its own component.

        :param n: The number of elements.
        """
        if n < 0:
            raise ValueError("n must be >= 0")

        # self.parent[i] = parent of element i
        self.parent = list(range(n))

        # self.size[i] = number of elements in the tree rooted at i
        self.size = [1] * n

        # The number of distinct components (or disjoint sets)
        self.count = n

    def __len__(self):
        return len(self.parent)

    def get_count(self):
        """
        Returns the number of disjoint sets.
        """
        return self.count

    def _validate(self, p):
        n = len(self.parent)
        if p < 0 or p >= n:
            raise IndexError(f"index {p} is not between 0 and {n-1}")

    def find(self, p):
        """
        Returns the root (canonical element) of the set containing 'p'.
        Every node on the path is relinked directly to the root.
        """
        self._validate(p)

        root = p
        while root != self.parent[root]:
            root = self.parent[root]

        while p != root:
            next_p = self.parent[p]
            self.parent[p] = root
            p = next_p

        return root

    def connected(self, p, q):
        """
        Returns true if 'p' and 'q' are in the same component.
        """
        return self.find(p) == self.find(q)

    def component_size(self, p):
        return self.size[self.find(p)]

    def union(self, p, q):
        """
        Merges the set containing 'p' with the set containing 'q' and
        returns the id of the surviving root.

        The root of the smaller tree is linked under the root of the larger
        one; on a tie q's root goes under p's root. Callers that attach data
        to roots must move it onto the returned root.
        """
        rootP = self.find(p)
        rootQ = self.find(q)

        if rootP == rootQ:
            return rootP

        if self.size[rootP] < self.size[rootQ]:
            rootP, rootQ = rootQ, rootP

        self.parent[rootQ] = rootP
        self.size[rootP] += self.size[rootQ]
        self.count -= 1
        return rootP


# Array kernels with the same linking rule, for the compiled trial engine
@njit(cache=True)
def find_root(parent, x):
    root = x
    while parent[root] != root:
        root = parent[root]
    while x != root:
        next_x = parent[x]
        parent[x] = root
        x = next_x
    return root


@njit(cache=True)
def union_by_size(parent, size, a, b):
    ra = find_root(parent, a)
    rb = find_root(parent, b)
    if ra == rb:
        return ra
    if size[ra] < size[rb]:
        ra, rb = rb, ra
    parent[rb] = ra
    size[ra] += size[rb]
    return ra
