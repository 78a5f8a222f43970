"""Statistical models: LOESS smoother and seeded k-means."""
from .loess import LoessSmoother, tricube
from .kmeans import ClusterFit, KMeansClusterer, kmeans_labels
