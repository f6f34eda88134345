import setuptools

with open("README.md", "r", encoding = "utf-8") as fh:
	long_description = fh.read()

setuptools.setup(
	name = "pyboss",
	version = "v0.1.0",
	author = "pyboss developers",
	description = "Weighted finite-state transducer algebra and evaluation",
	long_description = long_description,
	long_description_content_type = "text/markdown",
	classifiers = [
		"Programming Language :: Python :: 3",
		"License :: OSI Approved :: Apache Software License",
		"Operating System :: OS Independent",
	],
	package_dir = {"": "src"},
	packages = setuptools.find_packages(where="src"),
	python_requires = ">=3.8",
	install_requires = [
		"graphviz", "numpy", "pydantic>=2", "tqdm"
	],
	extras_require = {
		"test": ["pytest"],
	}
)
