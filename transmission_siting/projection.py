# projection.py
# local metric working frame for one routing request. inputs arrive as
# WGS84; the grid, buffers and lengths are computed in a planar CRS (the
# AOI's UTM zone unless an explicit working CRS is configured) and results
# are converted back for output.

import geopandas as gpd

WGS84 = "EPSG:4326"


class LocalFrame:

    def __init__(self, crs):
        self.crs = crs

    @classmethod
    def for_aoi(cls, aoi, crs=None):
        """choose the planar CRS for an AOI polygon given in WGS84."""
        if crs is None:
            crs = gpd.GeoSeries([aoi], crs=WGS84).estimate_utm_crs()
        return cls(crs)

    def to_planar(self, geometries):
        geometries = list(geometries)
        if not geometries:
            return []
        return list(gpd.GeoSeries(geometries, crs=WGS84).to_crs(self.crs))

    def to_geographic(self, geometries):
        geometries = list(geometries)
        if not geometries:
            return []
        return list(gpd.GeoSeries(geometries, crs=self.crs).to_crs(WGS84))

    def project_layers(self, layers):
        return layers.map_geometries(self.to_planar)

    def __repr__(self):
        return f"LocalFrame(crs={self.crs!r})"
