# %%

# %% [markdown]
# # Flattening and optimizing
# A structure referenced many times is drawn once per reference. Flattening copies the geometry of every referenced structure into the parent, then merges the shapes of each layer into a single non-overlapping geometry.

# %%
import gdstk
from shapely.ops import unary_union

from gds2svg.elements import OptimizedGeometry
from gds2svg.flatten import flatten, flatten_library
from gds2svg.reader import read_gds

lib = gdstk.Library("DEMO", unit=1e-6, precision=1e-9)
cell = lib.new_cell("CELL")
cell.add(gdstk.rectangle((0, 0), (10, 10), layer=1))
cell.add(gdstk.rectangle((5, 5), (15, 15), layer=1))

top = lib.new_cell("TOP")
top.add(gdstk.Reference(cell, origin=(0, 0)))
top.add(gdstk.Reference(cell, origin=(12, 0), rotation=1.5707963267948966))
lib.write_gds("optimize.gds")

# %% [markdown]
# `flatten` works on one structure and everything below it. The reference graph is checked first, so a missing or cyclic reference raises before anything is modified:

# %%
library = read_gds("optimize.gds")
top = library.top()
flatten(top, library)

for element in top.elements:
    if isinstance(element, OptimizedGeometry):
        merged = unary_union(element.polygons)
        print(element.layer, merged.area, merged.bounds)

# %% [markdown]
# `flatten_library` flattens every structure on a thread pool. Structures that cannot be flattened are reported instead of stopping the others:

# %%
library = read_gds("optimize.gds")
failures = flatten_library(library, n_threads=4)
print(failures)
