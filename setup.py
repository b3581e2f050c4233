from setuptools import setup, find_packages

# Function to read the contents of the requirements file
def read_requirements():
    with open('requirements.txt') as req:
        return [line for line in req.read().splitlines() if line and not line.startswith('#')]

setup(
    name='permutix',
    version='0.1.0',
    description='Voxel-based permutation testing with threshold-free cluster enhancement',
    packages=find_packages(exclude=['permutix.tests']),
    python_requires='>=3.8',
    install_requires=read_requirements(),
    extras_require={
        'test': ['pytest'],
    },
)
