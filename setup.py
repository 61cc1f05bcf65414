import setuptools

with open("README.md", "r") as file:
    long_description = file.read()

with open("requirements.txt") as file:
    REQUIREMENTS = [line for line in file.read().split("\n") if line and not line.startswith("#")]

setuptools.setup(
     name="compacter",
     version="0.1.0",
     author="moist",
     author_email="moistanonpy@gmail.com",
     description="Compact cache serialization for graphs of SQLAlchemy records.",
     long_description=long_description,
     long_description_content_type="text/markdown",
     install_requires=REQUIREMENTS,
     extras_require={"test": ["pytest"]},
     include_package_data=True,
     package_data={"compacter": ["data/*.yaml"]},
     package_dir={"":"src"},
     packages=setuptools.find_packages(where="src"),
     python_requires=">=3.8",
     classifiers=[
         "Programming Language :: Python :: 3",
         "License :: OSI Approved :: MIT License",
         "Operating System :: Linux",
     ],
 )
