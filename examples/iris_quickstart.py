from time import perf_counter
from sklearn.datasets import load_iris

from cartpy import classify, enable_logging, gini, grow, prune, render

iris = load_iris(as_frame=True)
df = iris.frame
df["target"] = iris.target_names[df["target"]]
headers = dict(enumerate(df.columns))
rows = df.values.tolist()

t0 = perf_counter(); tree = grow(rows, gini); print(f"grow: {perf_counter()-t0:.3f} s")

# report every merged branch
with enable_logging(level="INFO"):
    prune(tree, 0.8, gini, notify=True)
print(render(tree, headers))

print(classify([6.0, 2.2, 5.0, 1.5], tree))
print(classify([None, None, None, 1.5], tree, data_missing=True))
