import pandas as pd
from time import perf_counter
from sklearn.datasets import load_diabetes

from cartpy import DecisionTreeRegressor

df = load_diabetes(as_frame=True).frame.head(120)
y = df["target"].values
Xdf = df.drop(columns=["target"])
feats = list(Xdf.columns)

reg = DecisionTreeRegressor(min_gain=50.0, feature_names=feats)

t0 = perf_counter(); reg.fit(Xdf.values.astype(object), y); print(f"fit: {perf_counter()-t0:.3f} s")
print(reg.export_text())
print(pd.Series(reg.predict(Xdf.values[:5].astype(object)), name="prediction"))
