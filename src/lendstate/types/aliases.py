type BlockNumber = int
type ChainId = int
type DayBucket = int
type Timestamp = int
