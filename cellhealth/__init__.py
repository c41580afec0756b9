"""
CellHealth application package.

This package contains the FastAPI web application, data ingestion utilities,
the capacity-estimation pipeline and API endpoints for lithium-ion battery
health analysis.  The top-level module `main` exposes a FastAPI instance
that serves both HTML pages and JSON APIs.

The pipeline runs strictly in one direction:

* Ingestion of uploaded CSV/JSON discharge data (`data.sources`).
* Min-max or fixed z-score normalization (`ml.normalize`).
* A capacity regressor: brute-force k-nearest-neighbours, a scikit-learn
  ensemble, or a PyTorch LSTM over sliding windows (`ml.model`,
  `ml.sequence`).
* A physics-based exponential fade model blended with the network output
  for single-sample predictions (`ml.physics`, `ml.predictor`).
* Error and fit metrics plus report/history helpers (`ml.metrics`,
  `reports`).
"""

__version__ = "0.1.0"
