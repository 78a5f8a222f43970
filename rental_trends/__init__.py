"""
Rental Price Trends Case Study - Source Code.

Modules:
- data: Data loading and cleaning
- models: Local regression (LOESS) and k-means clustering
- features: Trend / periodic / remainder decomposition
- clustering: Cluster matrix, model selection and labeling
- visualization: Charts and the cluster map
- pipeline: End-to-end case study run
"""
